"""Inference service client and logging helpers"""
