"""Service layer: speech synthesis, segmentation and mood helpers."""
