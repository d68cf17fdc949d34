"""
Deployment and Management Scripts
================================

Scripts for deploying and wiring the CoinStructure crowdsale contracts.

Structure:
- deployment/: Contract deployment pipeline, network profiles and web3 primitives
"""

__version__ = "1.0.0"
__author__ = "CoinStructure Team"
