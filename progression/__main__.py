from progression.cli.main import run

run()
