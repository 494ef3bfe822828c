"""MedPlat guideline service: region detection, guideline lookup and LMIC case adaptation."""
