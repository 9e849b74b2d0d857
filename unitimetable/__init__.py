"""
unitimetable: aggregate, filter and export Unibo course timetables.
"""
