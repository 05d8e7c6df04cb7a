import sys

from helmsman import *


app = App(RuntimeConfig(prog="demo", version="0.1.0"))


@app.use
@interceptor
async def elapsed(context, token, next):
    context.state = "started"
    await next(context, token)


@app.command("add", Parameter("x", int, alias="x"), Parameter("y", int, alias="y"))
def add(x, y):
    """Add two numbers."""
    print(x + y)


@app.command("show", Parameter("value", float, rules=[Range(0, 1)], descr="A ratio."))
def show(value):
    """Show a ratio as a percentage."""
    print(f"{value:.0%}")


if __name__ == '__main__':
    sys.exit(app.run())
