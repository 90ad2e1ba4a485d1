"""Odometry pipeline: detection gate, estimators and collaborator interfaces."""
