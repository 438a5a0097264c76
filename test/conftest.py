import os

# Must be set before any app module is imported: switches the database to
# in-memory sqlite and skips Firebase initialisation.
os.environ["TESTING"] = "True"
