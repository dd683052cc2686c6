"""
Command-line maintenance scripts, installed as console entry points:

    natours-import-dev-data --import | --delete
    natours-update-tour-stats
"""
