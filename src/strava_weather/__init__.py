"""Strava Weather: adds weather conditions to new Strava activities.

Strava notifies the service of new activities through a push subscription;
each activity is enriched with the weather at its start time and place.
"""

__version__ = "0.1.0"
