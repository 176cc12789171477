"""
Pipeline stages for the lead scoring feature.
"""
