"""TuneBox backend and console player."""
