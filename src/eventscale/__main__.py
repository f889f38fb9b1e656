from eventscale.cli import app

app()
