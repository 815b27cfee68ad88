from b2kit.cli.main import run

run()
