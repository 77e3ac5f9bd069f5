"""SmartScan document core.

Normalizes photographed business documents into flat scans and
classifies their recognised text into invoices, delivery notes and
warehouse labels with rule-based field extraction.
"""
