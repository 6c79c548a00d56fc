"""Models shared between the ant_system core and the tsp_runner shell."""
