"""API routers for the Scramble tracker."""
