"""Provisioning pipeline.

Each module implements one component of the install:
- prerequisites: OS, driver and GPU capability checks
- collector: interactive server launch parameters
- dependencies: system packages, interpreter selection and uv
- environment: dedicated account, directory layout and virtual environment
- artifacts: launcher script and help command rendering
- service: optional systemd service registration
- orchestrator: stage sequencing and the closing summary
"""
