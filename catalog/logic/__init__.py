"""Fragment ranking logic: store adapter, rank shifter, engine and summary projection."""
