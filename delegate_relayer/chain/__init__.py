"""
Chain gateways for the delegate relayer.
"""
from .base import ChainGateway
from .web3_gateway import Web3ChainGateway

__all__ = ['ChainGateway', 'Web3ChainGateway']
