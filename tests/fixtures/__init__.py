"""Test fixtures: mock AnnData objects and stub deconvolvers."""
