from portmon.cli import app

app(prog_name="portmon")
