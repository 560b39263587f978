"""CLI entrypoint: Typer app definition and command registration"""

import typer

from legalmd.cli.commands import fields_cmd, resolve_cmd


app = typer.Typer(name="legalmd", no_args_is_help=True, help="Legal markdown resolution pipeline")

app.command(name="resolve")(resolve_cmd)
app.command(name="fields")(fields_cmd)
