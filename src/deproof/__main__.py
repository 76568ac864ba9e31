from deproof.cli.app import cli

cli()
