"""Console player: queue controller, audio engines and rendering."""
