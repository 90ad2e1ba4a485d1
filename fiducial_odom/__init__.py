"""Relative odometry from fiducial marker detections."""
