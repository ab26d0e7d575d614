from geo_writer.cli import cli_entry

cli_entry()
