"""Item-item collaborative filtering with k-fold validation on explicit ratings.

Core idea:
- Index training ratings item -> {user -> rating}
- Cosine similarity between every pair of items that share at least one rater
- Predict a user's rating of an item as the similarity-weighted average of the
  user's ratings on similar items
- Score predictions on held-out folds with MAE / RMSE
"""
