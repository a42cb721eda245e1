"""
Physarum Trail Simulation

Multiple populations of foraging agents move over toroidal trail fields,
sensing an attraction-weighted mix of every population's trail and
depositing into their own. The engine is a pure compute loop: the caller
drives it one step() at a time and reads the fields back for rendering.
"""

__version__ = "0.1.0"
