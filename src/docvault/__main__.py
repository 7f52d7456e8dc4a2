from docvault.cli import app

app(prog_name="docvault")
