"""Lending protocol position health monitor."""
