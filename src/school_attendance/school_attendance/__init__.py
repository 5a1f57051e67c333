"""School Attendance package.

This package is organized by feature modules (roster, attendance, leaves, reports)
with a thin Flask controller layer over service/repository layers.
"""
