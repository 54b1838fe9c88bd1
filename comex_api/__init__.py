"""HTTP API over the shipment dashboard compute functions."""
