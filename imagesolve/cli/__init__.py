"""imagesolve command line interface"""
