"""sozu-acme tests"""
