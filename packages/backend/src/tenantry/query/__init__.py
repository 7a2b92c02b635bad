"""Filter trees and their compilation to SQL."""
