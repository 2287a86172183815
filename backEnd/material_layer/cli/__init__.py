"""Command line interface for the material layer (python -m material_layer.cli)."""
