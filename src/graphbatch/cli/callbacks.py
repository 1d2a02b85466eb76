import typer

from graphbatch.api_utils import require_access_token


def token_callback(ctx: typer.Context, value: str | None):
    if ctx.resilient_parsing:
        return
    try:
        return require_access_token(value)
    except ValueError as error:
        raise typer.BadParameter(message=str(error), param_hint="--token, -t") from error
