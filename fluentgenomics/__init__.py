"""
fluentgenomics - DE/DA integration by genomic overlap

Joins differential expression results with differential accessibility
peaks around gene TSSs and measures enrichment against bootstrap
background genes.
"""

__version__ = "0.1.0"
__author__ = "fluentgenomics Team"
