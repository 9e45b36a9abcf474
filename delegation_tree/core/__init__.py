"""Delegation tree - shared result and settings modules"""
