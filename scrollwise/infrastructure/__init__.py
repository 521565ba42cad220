"""Infrastructure - settings, database pool and schema"""
