"""Shared configuration and identity helpers."""
