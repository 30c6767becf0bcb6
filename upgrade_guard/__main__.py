from upgrade_guard.cli import app

app(prog_name="upgrade-guard")
