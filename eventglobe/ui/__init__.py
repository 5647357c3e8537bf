"""Qt user interface for the Event Globe viewer."""
