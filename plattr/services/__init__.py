"""
                        Services Module

Contains all business logic services. Backends follow the hybrid
pattern: an abstract base plus in-memory (development) and real
(production) implementations selected by a cached factory.

Services:
    - store: record store (memory, Supabase REST, SQL)
    - session: device-scoped identity cache (memory, Redis)
    - auth: OTP authenticator
    - cart: cart aggregator
    - orders: order composer
    - checkout: payment confirmation via Stripe
    - notifications: OTP delivery hook
"""
