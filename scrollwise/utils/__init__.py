"""Utilities - clock, unit conversion, error sanitization"""
