"""Billing domain - Stripe webhooks, the transaction ledger and refunds"""
