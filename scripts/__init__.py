"""
Deployment Scripts
==================

Scripts for deploying the MeltyFi contract suite with the deployment sequencer.

Structure:
- deploy_meltyfi: deploys plans/meltyfi.json and exports deployment.json
"""
