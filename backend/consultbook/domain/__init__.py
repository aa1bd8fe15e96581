"""Pure scheduling rules: slot values, booking-type capabilities, status derivation."""
