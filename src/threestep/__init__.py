"""
Manual ML Three-Step Auxiliary Variable Package (threestep)

Scripts the three-step latent class procedure around an external
mixture-modelling engine (Mplus):

    1. Fit the measurement model and save most-likely class assignments
    2. Pin the classification logits as fixed constants
    3. Relate the classes to covariates and distal outcomes

ARCHITECTURAL GUARANTEE:
------------------------
This package contains ZERO estimation code.

It builds typed model specifications, renders them to engine syntax,
runs the engine, and reads numbers back out of its output.
All statistics happen in the engine.
"""

__version__ = "0.1.0"
