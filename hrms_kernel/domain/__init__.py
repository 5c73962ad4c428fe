"""Pure domain helpers for the HRMS kernel."""
