"""On-chain side of the Speed Horses app: roles, ABIs, address book, client, wallet."""
