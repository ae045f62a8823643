"""
PragnaAI Consensus Engine

Multi-unit spectroscopic risk screening with weighted consensus and a
reasoning trace. Research use only.
"""
__version__ = "1.0.0"
